"""
FastAPI app: Azure AD OpenID Connect sign-in, AD group to role mapping, and single sign-out.

Decisions:
- .env is loaded before importing aad_sso so AZURE_* and SESSION_SECRET are
  available when the auth router is created (Ruff E402 suppressed for that).
- LOCAL_ROLES are the application's roles; AZURE_GROUP_MAPPINGS maps AD groups
  onto them (one "role|group1;group2" rule per line).
- Stores are in-memory; restart loses accounts and role assignments.
- Session secret from SESSION_SECRET env; default "change-me" is for dev only.
"""

import logging
import os

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, Request
from starlette.middleware.sessions import SessionMiddleware

load_dotenv()

# Load .env before aad_sso so AZURE_* and SESSION_SECRET are set; Ruff E402.
from aad_sso import EnvConfigStore, require_any_role, require_roles, validate_mapping_rules  # noqa: E402
from aad_sso.config import PROVIDER_KEY  # noqa: E402
from aad_sso.errors import ConfigurationUnavailable  # noqa: E402
from aad_sso.models import Role  # noqa: E402
from aad_sso.router import create_auth_router  # noqa: E402
from aad_sso.stores import (  # noqa: E402
    InMemoryAuthMap,
    InMemoryRoleStore,
    InMemoryUserStateStore,
    InMemoryUserStore,
)

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

SESSION_SECRET = os.getenv("SESSION_SECRET", "change-me")

LOCAL_ROLES = [
    Role(id="administrator", label="Administrator", is_admin=True),
    Role(id="support", label="Support"),
    Role(id="editor", label="Editor"),
]

config_store = EnvConfigStore()
role_store = InMemoryRoleStore(LOCAL_ROLES)
user_store = InMemoryUserStore(
    new_accounts_active=os.getenv("USER_REGISTRATION_REQUIRES_APPROVAL", "").lower() not in ("1", "true", "yes")
)

# Surface rules that would be skipped at sign-in
try:
    for problem in validate_mapping_rules(config_store.get_client_config(PROVIDER_KEY).group_mapping_rules, LOCAL_ROLES):
        logger.warning(f"AD group mapping: {problem}")
except ConfigurationUnavailable as e:
    logger.warning(f"Windows Azure AD is not configured: {e}")

app = FastAPI()
app.add_middleware(SessionMiddleware, secret_key=SESSION_SECRET)
app.include_router(
    create_auth_router(config_store, role_store, InMemoryUserStateStore(), user_store, InMemoryAuthMap())
)


@app.get("/")
async def home(request: Request):
    user = request.session.get("user")
    return {"logged_in": bool(user), "user": user}


@app.get("/admin")
async def admin_area(_=Depends(require_roles("administrator"))):
    return {"ok": True, "area": "admin"}


@app.get("/support")
async def support_area(_=Depends(require_roles("support"))):
    return {"ok": True, "area": "support"}


@app.get("/support-or-admin")
async def support_or_admin_area(_=Depends(require_any_role("support", "administrator"))):
    return {"ok": True, "area": "support or admin"}
