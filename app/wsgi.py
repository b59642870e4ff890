from app.tenderguru import create_app

app = create_app()
