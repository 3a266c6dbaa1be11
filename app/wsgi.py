from app.cwms import create_app

app = create_app()
