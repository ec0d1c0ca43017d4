from app.agora import create_app

app = create_app()
