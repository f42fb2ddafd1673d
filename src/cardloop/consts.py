VERSION = "0.4.2"
APP_NAME = "cardloop"
