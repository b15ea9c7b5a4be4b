from fastapi import Request


def get_job_manager(request: Request):
    return request.app.state.job_manager


def get_db(request: Request):
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()
