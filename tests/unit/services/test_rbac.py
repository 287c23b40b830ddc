from src.app.services.rbac import ANY_ROLE, PRO_ONLY, allowed, authorize
from src.domain.entities import Role


def test_any_role_admits_both_roles():
    assert allowed(Role.STARTER, ANY_ROLE)
    assert allowed(Role.PRO, ANY_ROLE)


def test_pro_only_rejects_starter():
    assert allowed(Role.PRO, PRO_ONLY)
    assert not allowed(Role.STARTER, PRO_ONLY)


def test_missing_role_is_never_allowed():
    assert not allowed(None, ANY_ROLE)


def test_denial_reports_required_and_actual_role():
    result = authorize(Role.STARTER, PRO_ONLY)

    assert result.is_err()
    assert result.error.code == "FORBIDDEN"
    assert result.error.details == {"required_roles": ["PRO"], "actual_role": "STARTER"}


def test_authorize_returns_role_on_success():
    result = authorize(Role.PRO, PRO_ONLY)

    assert result.is_ok()
    assert result.value == Role.PRO
