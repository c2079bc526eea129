from datetime import datetime, timedelta, timezone
from typing import Optional
import logging
import re
import uuid

from fastapi import APIRouter, HTTPException, Depends
from fastapi.security import OAuth2PasswordRequestForm, OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel

from ..settings import settings
from sqlalchemy.orm import Session
from ..db import get_db
from ..models import AuthSession, User

router = APIRouter(prefix="/auth", tags=["auth"])

logger = logging.getLogger(__name__)
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token")

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class Token(BaseModel):
	access_token: str
	token_type: str = "bearer"


class CurrentUser(BaseModel):
	id: int
	email: str
	first_name: str
	last_name: str
	is_admin: bool = False


class SignupRequest(BaseModel):
	firstName: str
	lastName: str
	email: str
	password: str


class LoginRequest(BaseModel):
	email: str
	password: str


def _bcrypt_safe(password: str) -> str:
	# bcrypt only looks at the first 72 bytes
	password_bytes = password.encode("utf-8")
	if len(password_bytes) > 72:
		password_bytes = password_bytes[:72]
	return password_bytes.decode("utf-8", errors="ignore")


def hash_password(password: str) -> str:
	return pwd_context.hash(_bcrypt_safe(password))


def verify_password(plain_password: str, hashed_password: str) -> bool:
	return pwd_context.verify(_bcrypt_safe(plain_password), hashed_password)


def _current_user_from_row(row: User) -> CurrentUser:
	return CurrentUser(id=row.id, email=row.email, first_name=row.first_name, last_name=row.last_name, is_admin=bool(row.is_admin))


def authenticate_user(db: Session, email: str, password: str) -> Optional[User]:
	row = db.query(User).filter(User.email == (email or "").strip().lower()).first()
	if row and verify_password(password, row.password_hash):
		return row
	return None


def ensure_seed_admin(db: Session) -> None:
	email = (settings.seed_admin_email or "").strip().lower()
	password = settings.seed_admin_password
	if not email or not password:
		return
	row = db.query(User).filter(User.email == email).first()
	if row is None:
		db.add(User(first_name="Admin", last_name="Admin", email=email, password_hash=hash_password(password), is_admin=True))
		db.commit()
		logger.info("Seeded admin account %s", email)
	elif not row.is_admin:
		row.is_admin = True
		db.commit()


def _resolve_expiry(expires_delta: Optional[timedelta]) -> datetime:
	delta = expires_delta
	if delta is None:
		minutes = settings.access_token_expire_minutes
		delta = timedelta(minutes=minutes) if minutes > 0 else timedelta(days=1)
	return datetime.now(timezone.utc) + delta


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
	to_encode = data.copy()
	to_encode.update({"exp": _resolve_expiry(expires_delta)})
	return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def _open_session(db: Session, user: User) -> Token:
	# Each login gets its own server-side session (jti)
	session_id = uuid.uuid4().hex
	access_token = create_access_token({"sub": str(user.id), "jti": session_id})
	db.add(AuthSession(session_id=session_id, user_id=user.id))
	db.commit()
	return Token(access_token=access_token)


@router.post("/signup", status_code=201)
async def signup(req: SignupRequest, db: Session = Depends(get_db)):
	first_name = (req.firstName or "").strip()
	last_name = (req.lastName or "").strip()
	email = (req.email or "").strip().lower()
	password = req.password or ""
	errors = []
	if len(first_name) < 3:
		errors.append("firstName must be at least 3 characters long")
	if len(last_name) < 3:
		errors.append("lastName must be at least 3 characters long")
	if not _EMAIL_RE.match(email):
		errors.append("email must be a valid email address")
	if len(password) < 6:
		errors.append("password must be at least 6 characters long")
	if errors:
		raise HTTPException(status_code=400, detail=errors)
	existing = db.query(User).filter(User.email == email).first()
	if existing:
		raise HTTPException(status_code=400, detail="User already exists")
	row = User(first_name=first_name, last_name=last_name, email=email, password_hash=hash_password(password))
	db.add(row)
	db.commit()
	db.refresh(row)
	return {"message": "Signup succeeded", "user": _current_user_from_row(row).model_dump()}


@router.post("/login", response_model=Token)
async def login(req: LoginRequest, db: Session = Depends(get_db)):
	user = authenticate_user(db, req.email, req.password)
	if not user:
		raise HTTPException(status_code=403, detail="Invalid credentials")
	return _open_session(db, user)


@router.post("/token", response_model=Token)
async def token(form_data: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(get_db)):
	user = authenticate_user(db, form_data.username, form_data.password)
	if not user:
		raise HTTPException(status_code=401, detail="Incorrect username or password")
	return _open_session(db, user)


def _decode_token(token: str) -> tuple[int, str]:
	credentials_exception = HTTPException(status_code=401, detail="Could not validate credentials")
	try:
		payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
		subject = payload.get("sub")
		jti = payload.get("jti")
		if subject is None or jti is None:
			raise credentials_exception
		return int(subject), str(jti)
	except (JWTError, ValueError):
		raise credentials_exception


def get_current_user(token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)) -> CurrentUser:
	credentials_exception = HTTPException(status_code=401, detail="Could not validate credentials")
	user_id, jti = _decode_token(token)
	# A token is only valid while its session row exists (logout deletes it)
	session_row = db.get(AuthSession, jti)
	if not session_row or session_row.user_id != user_id:
		raise credentials_exception
	user_row = db.get(User, user_id)
	if user_row is None:
		raise credentials_exception
	session_row.last_activity_at = datetime.utcnow()
	db.commit()
	return _current_user_from_row(user_row)


def get_current_admin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
	if not user.is_admin:
		raise HTTPException(status_code=403, detail="Admin access required")
	return user


@router.get("/me", response_model=CurrentUser)
async def me(user: CurrentUser = Depends(get_current_user)):
	return user


@router.get("/logout")
async def logout(token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)):
	user_id, jti = _decode_token(token)
	row = db.get(AuthSession, jti)
	if row is not None and row.user_id == user_id:
		db.delete(row)
		db.commit()
	return {"message": "Logged out successfully"}
