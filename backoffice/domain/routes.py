from __future__ import annotations

from dataclasses import dataclass

from backoffice.domain import permissions as perms


@dataclass(frozen=True)
class RouteEntry:
    path: str
    page_key: str
    component: str

    @property
    def segments(self) -> tuple[str, ...]:
        return _split(self.path)

    @property
    def has_params(self) -> bool:
        return any(_is_param(segment) for segment in self.segments)

    def matches(self, path: str) -> bool:
        candidate = _split(path)
        if len(candidate) != len(self.segments):
            return False
        return all(
            _is_param(expected) or expected == actual
            for expected, actual in zip(self.segments, candidate, strict=True)
        )


def _split(path: str) -> tuple[str, ...]:
    return tuple(part for part in path.split("?", 1)[0].strip().split("/") if part)


def _is_param(segment: str) -> bool:
    return segment.startswith("{") and segment.endswith("}")


ROUTE_TABLE: tuple[RouteEntry, ...] = (
    RouteEntry("/campaigns/{campaign_id}", perms.PAGE_CAMPAIGNS, "CampaignDetailsPage"),
    RouteEntry("/campaigns", perms.PAGE_CAMPAIGNS, "CampaignsPage"),
    RouteEntry("/clients", perms.PAGE_CLIENTS, "ClientsPage"),
    RouteEntry("/ad-accounts", perms.PAGE_AD_ACCOUNTS, "AdAccountsPage"),
    RouteEntry("/work-reports", perms.PAGE_WORK_REPORTS, "WorkReportsPage"),
    RouteEntry("/client-mailbox", perms.PAGE_CLIENT_MAILBOX, "ClientMailboxPage"),
    RouteEntry("/client-accounts", perms.PAGE_ADMIN, "ClientAccountsPage"),
    RouteEntry("/finance/dashboard", perms.PAGE_FINANCE, "FinanceDashboard"),
    RouteEntry("/finance/projects", perms.PAGE_FINANCE, "FinanceProjects"),
    RouteEntry("/finance/payments", perms.PAGE_FINANCE, "FinancePayments"),
    RouteEntry("/finance/expenses", perms.PAGE_FINANCE, "FinanceExpenses"),
    RouteEntry("/finance/salary-management", perms.PAGE_SALARY_MANAGEMENT, "FinanceSalaryManagement"),
    RouteEntry("/finance/reports", perms.PAGE_FINANCE, "FinanceReports"),
    RouteEntry("/fb-ad-management", perms.PAGE_FB_AD_MANAGEMENT, "FBAdManagementPage"),
    RouteEntry("/advantix-ads", perms.PAGE_ADVANTIX_ADS_MANAGER, "AdvantixAdsManager"),
    RouteEntry("/own-farming/dashboard", perms.PAGE_OWN_FARMING_DASHBOARD, "OwnFarmingDashboard"),
    RouteEntry("/own-farming/new-created", perms.PAGE_NEW_CREATED, "NewCreatedPage"),
    RouteEntry("/own-farming/farming-accounts", perms.PAGE_FARMING_ACCOUNTS, "FarmingAccountsPage"),
    RouteEntry("/own-farming/settings", perms.PAGE_OWN_FARMING_SETTINGS, "OwnFarmingSettings"),
    RouteEntry("/own-farming/mail-management", perms.PAGE_MAIL_MANAGEMENT, "MailManagementPage"),
    RouteEntry("/gher/dashboard", perms.PAGE_GHER_MANAGEMENT, "GherDashboard"),
    RouteEntry("/gher/expense", perms.PAGE_GHER_MANAGEMENT, "GherExpense"),
    RouteEntry("/gher/partner", perms.PAGE_GHER_MANAGEMENT, "GherPartner"),
    RouteEntry("/gher/invoice", perms.PAGE_GHER_INVOICES, "GherInvoice"),
    RouteEntry("/gher/settings", perms.PAGE_GHER_MANAGEMENT, "GherSettings"),
    RouteEntry("/admin", perms.PAGE_ADMIN, "AdminPage"),
    RouteEntry("/", perms.PAGE_DASHBOARD, "Home"),
)


def match_route(path: str, route_table: tuple[RouteEntry, ...] = ROUTE_TABLE) -> RouteEntry | None:
    for entry in route_table:
        if entry.matches(path):
            return entry
    return None


def path_for_page_key(page_key: str, route_table: tuple[RouteEntry, ...] = ROUTE_TABLE) -> str | None:
    for entry in route_table:
        if entry.page_key == page_key and not entry.has_params:
            return entry.path
    return None
