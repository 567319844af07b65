# redirect_service/__main__.py

import uvicorn

from redirect_service.config import HOST, PORT

if __name__ == "__main__":
    uvicorn.run("redirect_service.main:app", host=HOST, port=PORT)
