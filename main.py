from contextlib import asynccontextmanager

from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware

from app.api.attendance.routes import router as attendance_router
from app.api.badges.routes import router as badges_router
from app.api.check_in.routes import router as check_in_router
from app.api.check_in_sessions.routes import router as check_in_sessions_router
from app.api.users.routes import router as users_router
from app.core.config import Environment, settings
from app.core.database import create_db


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.ENVIRONMENT != Environment.TEST:
        create_db()
    yield


app = FastAPI(lifespan=lifespan)

# Include routers
app.include_router(attendance_router, prefix='/attendance', tags=['Attendance'])
app.include_router(badges_router, prefix='/badges', tags=['Badges'])
app.include_router(
    check_in_sessions_router, prefix='/check-in/sessions', tags=['Check In Sessions']
)
app.include_router(check_in_router, prefix='/check-in', tags=['Check In'])
app.include_router(users_router, prefix='/users', tags=['Users'])

origins = ['*']
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)


@app.get('/', include_in_schema=False)
def ping():
    return Response(status_code=200)
