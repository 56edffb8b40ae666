from session_timer.cli import app

app()
