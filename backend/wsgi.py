# backend/wsgi.py
from interbranch import create_app

app = create_app()
