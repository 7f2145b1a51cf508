"""Entry point for python -m avatarflow"""
from avatarflow.cli.commands import app

if __name__ == "__main__":
    app()
