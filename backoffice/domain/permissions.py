from __future__ import annotations

from typing import Any

from backoffice.domain.models import (
    Page,
    Principal,
    RolePermission,
    UserMenuPermission,
    UserRole,
    Verdict,
)

PAGE_DASHBOARD = "dashboard"
PAGE_CAMPAIGNS = "campaigns"
PAGE_CAMPAIGN_DETAILS = "campaign_details"
PAGE_CLIENTS = "clients"
PAGE_AD_ACCOUNTS = "ad_accounts"
PAGE_SALARIES = "salaries"
PAGE_WORK_REPORTS = "work_reports"
PAGE_CLIENT_MAILBOX = "client_mailbox"
PAGE_FINANCE = "finance"
PAGE_SALARY_MANAGEMENT = "salary_management"
PAGE_FB_AD_MANAGEMENT = "fb_ad_management"
PAGE_ADVANTIX_ADS_MANAGER = "advantix_ads_manager"
PAGE_OWN_FARMING_DASHBOARD = "own_farming_dashboard"
PAGE_NEW_CREATED = "new_created"
PAGE_FARMING_ACCOUNTS = "farming_accounts"
PAGE_OWN_FARMING_SETTINGS = "own_farming_settings"
PAGE_MAIL_MANAGEMENT = "mail_management"
PAGE_GHER_MANAGEMENT = "gher_management"
PAGE_GHER_INVOICES = "gher_invoices"
PAGE_ADMIN = "admin"

# Consulted in this order when the landing page is denied.
FALLBACK_PAGE_KEYS: tuple[str, ...] = (
    PAGE_CAMPAIGNS,
    PAGE_CLIENTS,
    PAGE_AD_ACCOUNTS,
    PAGE_WORK_REPORTS,
    PAGE_FINANCE,
)

# Menu-surface pages and the UserMenuPermission column that widens them.
# The admin console is not a menu surface: admin_panel never grants it.
MENU_OVERRIDE_FIELDS: dict[str, str] = {
    PAGE_DASHBOARD: "dashboard",
    PAGE_CAMPAIGNS: "campaign_management",
    PAGE_CLIENTS: "client_management",
    PAGE_AD_ACCOUNTS: "ad_accounts",
    PAGE_WORK_REPORTS: "work_reports",
    PAGE_FINANCE: "advantix_dashboard",
    PAGE_SALARY_MANAGEMENT: "salary_management",
    PAGE_FB_AD_MANAGEMENT: "fb_ad_management",
    PAGE_ADVANTIX_ADS_MANAGER: "advantix_ads_manager",
    PAGE_OWN_FARMING_DASHBOARD: "own_farming",
    PAGE_NEW_CREATED: "new_created",
    PAGE_FARMING_ACCOUNTS: "farming_accounts",
    PAGE_OWN_FARMING_SETTINGS: "own_farming",
    PAGE_MAIL_MANAGEMENT: "mail_management",
}

DEFAULT_PAGES: tuple[dict[str, Any], ...] = (
    {"page_key": PAGE_DASHBOARD, "display_name": "Dashboard", "path": "/",
     "description": "Main dashboard with metrics and overview"},
    {"page_key": PAGE_CAMPAIGNS, "display_name": "Campaign Management", "path": "/campaigns",
     "description": "Manage advertising campaigns"},
    {"page_key": PAGE_CAMPAIGN_DETAILS, "display_name": "Campaign Details", "path": "/campaigns/{campaign_id}",
     "description": "View and edit individual campaign details"},
    {"page_key": PAGE_CLIENTS, "display_name": "Client Management", "path": "/clients",
     "description": "Manage client accounts and information"},
    {"page_key": PAGE_AD_ACCOUNTS, "display_name": "Ad Accounts", "path": "/ad-accounts",
     "description": "Manage advertising account connections"},
    {"page_key": PAGE_SALARIES, "display_name": "Salary Management", "path": "/salaries",
     "description": "Manage employee salaries and payments"},
    {"page_key": PAGE_WORK_REPORTS, "display_name": "Work Reports", "path": "/work-reports",
     "description": "Track and submit work hours and tasks"},
    {"page_key": PAGE_CLIENT_MAILBOX, "display_name": "Client Mailbox", "path": "/client-mailbox",
     "description": "Send manual emails to clients with custom reports"},
    {"page_key": PAGE_FINANCE, "display_name": "Finance", "path": "/finance/dashboard",
     "description": "Projects, payments, expenses and finance reports"},
    {"page_key": PAGE_SALARY_MANAGEMENT, "display_name": "Finance Salary Management",
     "path": "/finance/salary-management", "description": "Employee salary sheets"},
    {"page_key": PAGE_FB_AD_MANAGEMENT, "display_name": "FB Ad Management", "path": "/fb-ad-management",
     "description": "Facebook ad account operations"},
    {"page_key": PAGE_ADVANTIX_ADS_MANAGER, "display_name": "Advantix Ads Manager", "path": "/advantix-ads",
     "description": "Internal ads manager"},
    {"page_key": PAGE_OWN_FARMING_DASHBOARD, "display_name": "Own Farming Dashboard",
     "path": "/own-farming/dashboard", "description": "Own farming overview"},
    {"page_key": PAGE_NEW_CREATED, "display_name": "New Created", "path": "/own-farming/new-created",
     "description": "Newly created farming accounts"},
    {"page_key": PAGE_FARMING_ACCOUNTS, "display_name": "Farming Accounts",
     "path": "/own-farming/farming-accounts", "description": "Farming account inventory"},
    {"page_key": PAGE_OWN_FARMING_SETTINGS, "display_name": "Own Farming Settings",
     "path": "/own-farming/settings", "description": "Own farming configuration"},
    {"page_key": PAGE_MAIL_MANAGEMENT, "display_name": "Mail Management",
     "path": "/own-farming/mail-management", "description": "Farming mailbox management"},
    {"page_key": PAGE_GHER_MANAGEMENT, "display_name": "Gher Management", "path": "/gher/dashboard",
     "description": "Gher dashboard, expenses, partners and settings"},
    {"page_key": PAGE_GHER_INVOICES, "display_name": "Gher Invoices", "path": "/gher/invoice",
     "description": "Gher invoice generation"},
    {"page_key": PAGE_ADMIN, "display_name": "Admin Panel", "path": "/admin",
     "description": "Administrative settings and user management"},
)

_NONE = (False, False, False)
_VIEW = (True, False, False)
_VIEW_EDIT = (True, True, False)
_FULL = (True, True, True)

# (can_view, can_edit, can_delete) per role and page key. Missing keys get no row.
DEFAULT_ROLE_PERMISSIONS: dict[UserRole, dict[str, tuple[bool, bool, bool]]] = {
    UserRole.USER: {
        PAGE_DASHBOARD: _VIEW,
        PAGE_CAMPAIGNS: _NONE,
        PAGE_CAMPAIGN_DETAILS: _NONE,
        PAGE_CLIENTS: _NONE,
        PAGE_AD_ACCOUNTS: _NONE,
        PAGE_SALARIES: _NONE,
        PAGE_WORK_REPORTS: _VIEW_EDIT,
        PAGE_CLIENT_MAILBOX: _NONE,
        PAGE_ADMIN: _NONE,
    },
    UserRole.MANAGER: {
        PAGE_DASHBOARD: _VIEW,
        PAGE_CAMPAIGNS: _VIEW,
        PAGE_CAMPAIGN_DETAILS: _VIEW,
        PAGE_CLIENTS: _VIEW,
        PAGE_AD_ACCOUNTS: _VIEW,
        PAGE_SALARIES: _NONE,
        PAGE_WORK_REPORTS: _VIEW_EDIT,
        PAGE_CLIENT_MAILBOX: _VIEW_EDIT,
        PAGE_ADMIN: _NONE,
    },
    UserRole.ADMIN: {
        PAGE_DASHBOARD: _VIEW_EDIT,
        PAGE_CAMPAIGNS: _FULL,
        PAGE_CAMPAIGN_DETAILS: _VIEW_EDIT,
        PAGE_CLIENTS: _FULL,
        PAGE_AD_ACCOUNTS: _FULL,
        PAGE_SALARIES: _VIEW_EDIT,
        PAGE_WORK_REPORTS: _FULL,
        PAGE_CLIENT_MAILBOX: _VIEW_EDIT,
        PAGE_FINANCE: _FULL,
        PAGE_SALARY_MANAGEMENT: _VIEW_EDIT,
        PAGE_FB_AD_MANAGEMENT: _FULL,
        PAGE_ADVANTIX_ADS_MANAGER: _FULL,
        PAGE_GHER_MANAGEMENT: _FULL,
        PAGE_GHER_INVOICES: _FULL,
        PAGE_ADMIN: _NONE,
    },
    UserRole.SUPER_ADMIN: {item["page_key"]: _FULL for item in DEFAULT_PAGES},
}


def full_grant(page_key: str, reason: str) -> Verdict:
    return Verdict(
        page_key=page_key,
        granted=True,
        can_view=True,
        can_edit=True,
        can_delete=True,
        reason=reason,
    )


def denial(page_key: str, reason: str) -> Verdict:
    return Verdict(page_key=page_key, granted=False, reason=reason)


def is_super_admin_bypass(principal: Principal, page_key: str) -> bool:
    return page_key == PAGE_ADMIN and principal.role == UserRole.SUPER_ADMIN


def menu_override_allows(page_key: str, menu_permission: UserMenuPermission | None) -> bool:
    if menu_permission is None:
        return False
    field_name = MENU_OVERRIDE_FIELDS.get(page_key)
    if field_name is None:
        return False
    return bool(getattr(menu_permission, field_name, False))


def evaluate_page_access(
    principal: Principal,
    page_key: str,
    page: Page | None,
    role_permission: RolePermission | None,
    menu_permission: UserMenuPermission | None,
) -> Verdict:
    """Combine the looked-up rows into one verdict.

    The caller is responsible for rejecting inactive principals and unknown
    page keys; a ``None`` page here is treated as a plain denial.
    """
    if is_super_admin_bypass(principal, page_key):
        return full_grant(page_key, "super_admin_bypass")
    if page is None:
        return denial(page_key, "unknown_page")
    if not page.is_active:
        return denial(page_key, "inactive_page")

    if (
        role_permission is not None
        and role_permission.role == principal.role
        and role_permission.page_id == page.id
    ):
        can_view = bool(role_permission.can_view)
        can_edit = bool(role_permission.can_edit)
        can_delete = bool(role_permission.can_delete)
        reason = "role_permission" if can_view else "role_denied"
    else:
        can_view = can_edit = can_delete = False
        reason = "no_role_permission"

    if not can_view and menu_override_allows(page_key, menu_permission):
        can_view = True
        reason = "user_override"

    return Verdict(
        page_key=page_key,
        granted=can_view,
        can_view=can_view,
        can_edit=can_edit,
        can_delete=can_delete,
        reason=reason,
    )
