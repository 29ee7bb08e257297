import os

import uvicorn


def main():
    uvicorn.run(
        "sitewatch.main:app",
        host=os.getenv("SITEWATCH_HOST", "127.0.0.1"),
        port=int(os.getenv("SITEWATCH_PORT", "8000")),
    )


if __name__ == "__main__":
    main()
