from typing import Callable


def _periodic(app, socketio, name: str, interval: int, task: Callable[[], object]) -> None:
    while True:
        socketio.sleep(interval)
        with app.app_context():
            try:
                task()
            except Exception:
                app.logger.exception(f"[{name}] tick failed")


def start_background_tasks(app, socketio, presence, sweeper) -> bool:
    """Start the presence sweep and score flush loops.

    - No-ops in TESTING mode unless ENABLE_BACKGROUND_TASKS_IN_TESTS is set
    - Presence sweep every PRESENCE_SWEEP_SEC
    - Live score flush every SCORE_FLUSH_SEC
    """
    if app.config.get('TESTING') and not app.config.get('ENABLE_BACKGROUND_TASKS_IN_TESTS'):
        return False

    presence_every = int(app.config.get('PRESENCE_SWEEP_SEC', 10))
    flush_every = int(app.config.get('SCORE_FLUSH_SEC', 30))
    app.logger.info(f"[timer-set] presence every {presence_every}s, score flush every {flush_every}s")
    socketio.start_background_task(_periodic, app, socketio, 'presence', presence_every, presence.sweep)
    socketio.start_background_task(_periodic, app, socketio, 'flush', flush_every, sweeper.flush)
    return True
