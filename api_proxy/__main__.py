import uvicorn

from api_proxy.vars import PROXY_HOST, PROXY_PORT


def main():
    uvicorn.run("api_proxy.server:app", host=PROXY_HOST, port=PROXY_PORT)


if __name__ == "__main__":
    main()
