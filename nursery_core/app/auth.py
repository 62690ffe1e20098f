from fastapi import APIRouter, Depends, HTTPException, status, Request
from sqlalchemy.orm import Session

from . import models, schemas
from .auth_provider import AuthError, AuthProvider
from .deps import get_auth, get_current_user, get_db, oauth2_scheme, require_permission
from .security import ROLES, Permission, PasswordPolicy, RateLimiter, get_password_hash, sanitize_input

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=schemas.Token)
async def login(request: Request, db: Session = Depends(get_db), auth: AuthProvider = Depends(get_auth)):
    """Accept either form-encoded (OAuth2) login or JSON {email,password}."""
    ctype = (request.headers.get("content-type") or "").lower()
    email = None
    password = None

    if "application/json" in ctype:
        try:
            body = await request.json()
        except ValueError:
            raise HTTPException(status_code=400, detail="Malformed JSON body")
        if isinstance(body, dict):
            email = body.get("email") or body.get("username")
            password = body.get("password")
    else:
        # OAuth2PasswordRequestForm sends the email in the username field
        form = await request.form()
        email = form.get("username") or form.get("email")
        password = form.get("password")

    if not email or not password:
        raise HTTPException(status_code=400, detail="Missing email or password")

    email = sanitize_input(email).lower()
    allowed, _ = RateLimiter.check_rate_limit(f"login:{email}")
    if not allowed:
        raise HTTPException(status_code=429, detail="Too many login attempts. Try again later.")

    try:
        session = auth.sign_in(db, email, password)
    except AuthError as exc:
        RateLimiter.record_attempt(f"login:{email}")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc))

    RateLimiter.reset(f"login:{email}")
    return {"access_token": session.access_token, "token_type": session.token_type, "role": session.user.role}


@router.post("/logout")
def logout(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
    auth: AuthProvider = Depends(get_auth),
    current_user: models.User = Depends(get_current_user),
):
    auth.sign_out(db, token)
    return {"status": "ok", "message": "Signed out"}


@router.get("/me", response_model=schemas.UserOut)
def me(current_user: models.User = Depends(get_current_user)):
    return current_user


@router.post("/register", response_model=schemas.UserOut, status_code=201)
def register(user_in: schemas.UserCreate, db: Session = Depends(get_db), current_user: models.User = Depends(require_permission(Permission.USER_CREATE))):
    if user_in.role not in ROLES:
        raise HTTPException(status_code=400, detail=f"Role must be one of: {', '.join(ROLES)}")
    ok, errors = PasswordPolicy.validate(user_in.password)
    if not ok:
        raise HTTPException(status_code=400, detail="; ".join(errors))

    email = user_in.email.lower()
    existing = db.query(models.User).filter(models.User.email == email).first()
    if existing:
        raise HTTPException(status_code=400, detail="User with that email already exists")
    user = models.User(full_name=user_in.full_name, email=email, password_hash=get_password_hash(user_in.password), role=user_in.role)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user
