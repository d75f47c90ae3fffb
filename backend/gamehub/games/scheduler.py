from gamehub import socketio


def start_session_sweeper(app, manager) -> bool:
    """Periodically evict finished and idle sessions.

    - No-ops in TESTING mode unless ENABLE_SWEEPER_IN_TESTS is set
    - Runs as a Socket.IO background task so it cooperates with the async mode
    - GC_INTERVAL_SEC <= 0 disables the sweeper
    """
    if app.config.get('TESTING') and not app.config.get('ENABLE_SWEEPER_IN_TESTS'):
        return False

    try:
        interval = float(app.config.get('GC_INTERVAL_SEC', 10))
    except (TypeError, ValueError):
        interval = 10.0
    if interval <= 0:
        return False

    def _worker():
        app.logger.info(f"[sweeper-start] interval={interval}s")
        while True:
            socketio.sleep(interval)
            with app.app_context():
                try:
                    evicted = manager.collect_garbage()
                except Exception:
                    app.logger.exception("[sweeper-error] garbage collection failed")
                    continue
                if evicted:
                    app.logger.info(f"[sweeper] evicted={','.join(evicted)}")

    socketio.start_background_task(_worker)
    return True
