"""FastAPI dependencies: the acting principal and the services on ``app.state``."""
