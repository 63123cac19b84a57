from clothstock import create_app

app = create_app()
