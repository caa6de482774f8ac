from app.hub import create_app

app = create_app()
