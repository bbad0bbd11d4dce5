from matepos import create_app

app = create_app()
