"""Local development file server for HTTP or HTTPS."""

from devserver.bootstrap.runner import run

if __name__ == "__main__":
    run()
