import uvicorn

from gradecalc.config.settings import settings


if __name__ == "__main__":
    uvicorn.run("gradecalc.app:app", host=settings.host, port=settings.port)
