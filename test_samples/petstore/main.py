from courier import run_server
from courier.conf import ServerConfig

from .routes import RootRouter


def main():
    run_server(ServerConfig(port=8080), RootRouter)


if __name__ == "__main__":
    main()
