"""Entry point for `python -m wakeorpay`."""

from wakeorpay.cli.commands import app

if __name__ == "__main__":
    app()
