import os
import uvicorn

if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "8000")),
        reload=True,
        # Exclude staged code and media from the reload watcher
        reload_excludes=["media/*", "media/codes/*", "media/videos/*"]
    )
