from fastapi.responses import JSONResponse


def error_response(error, status=400, **extra):
    content = {"success": False, "error": error}
    content.update(extra)
    return JSONResponse(status_code=status, content=content)
