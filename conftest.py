# Importing api_proxy.server builds the app from the environment, which needs
# a proxy domain. Tests build their own apps from synthetic configurations.
import os

os.environ.setdefault("PROXY_DOMAIN", "proxy.example.com")
