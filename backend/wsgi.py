# Overview: WSGI entry point; also the FLASK_APP target for the CLI commands.

from retailpos import create_app

app = create_app()

if __name__ == "__main__":
    app.run(debug=False)
