from contextlib import contextmanager

from fastapi import HTTPException

from meditrack.services.adherence import InvalidTransitionError
from meditrack.services.schedule import EmptyScheduleError, InvalidPrescriptionError
from meditrack.services.store import NotFoundError, PermissionDeniedError

@contextmanager
def http_errors():
    """Map domain errors raised inside a route to HTTP responses."""
    try:
        yield
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except PermissionDeniedError as e:
        raise HTTPException(status_code=403, detail=str(e)) from e
    except InvalidTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    except (EmptyScheduleError, InvalidPrescriptionError) as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
