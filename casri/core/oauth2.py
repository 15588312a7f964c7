from fastapi.security import OAuth2PasswordBearer

# Header token is optional: the dashboard authenticates with the accessToken cookie
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)

ACCESS_COOKIE = "accessToken"
REFRESH_COOKIE = "refreshToken"
