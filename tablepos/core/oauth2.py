from fastapi.security import OAuth2PasswordBearer

# Bearer token issued by POST /session
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/session")
