from typing import Any, Dict, List, Optional
from urllib.parse import quote

from mcp.server import FastMCP

from .agent import ProductAgent, error_response
from .client import ResourceClient
from .errors import ApiClientError
from .filters import encode_filters
from .models import FieldPolicy, PagedResult, RequestDescriptor

BUILD_SUMMARY_FIELDS = (
    "id",
    "release_time",
    "app_version",
    "release_stage",
    "errors_introduced_count",
    "errors_seen_count",
    "total_sessions_count",
    "unhandled_sessions_count",
    "accumulative_daily_users_seen",
    "accumulative_daily_users_with_unhandled",
)

FIELD_POLICIES = {
    "organization": FieldPolicy.allow("id", "name", "slug"),
    "project": FieldPolicy.allow(
        "id", "organization_id", "slug", "name", "api_key", "type", "language",
        "release_stages", "open_error_count", "for_review_error_count", "created_at", "updated_at",
    ),
    "error": FieldPolicy.deny("url", "project_url", "events_url"),
    "event_field": FieldPolicy.allow("custom", "display_id", "filter_options", "pivot_options"),
    "build": FieldPolicy.allow(*BUILD_SUMMARY_FIELDS),
    "build_detail": FieldPolicy.deny("url", "html_url"),
    "release": FieldPolicy.passthrough(),
}

ERROR_OPERATIONS = [
    "open",
    "fix",
    "ignore",
    "discard",
    "undiscard",
    "snooze",
    "override_severity",
    "assign",
    "create_issue",
    "link_issue",
    "unlink_issue",
]

DEFAULT_ERROR_FILTERS = {
    "event.since": [{"type": "eq", "value": "30d"}],
    "error.status": [{"type": "eq", "value": "open"}],
}


def _page_params(per_page: Optional[int], **params: Any) -> List:
    query = [(key, value) for key, value in params.items() if value is not None]
    if per_page:
        query.append(("per_page", per_page))
    return query


class BugsnagAgent(ProductAgent):
    """Error tracking: organizations, projects, errors, builds and releases."""
    name = "Bugsnag"
    prefix = "bugsnag"

    def __init__(self, mcp_server: FastMCP, client: ResourceClient):
        super().__init__(mcp_server, client)
        # Bugsnag links every resource to its API URLs; none of them is returned
        client.policies.hide_values_starting_with(client.config.base_path)
        self.register_tools(
            self.list_organizations,
            self.list_projects,
            self.list_project_errors,
            self.get_error,
            self.update_error,
            self.list_project_event_fields,
            self.list_builds,
            self.get_build,
            self.list_releases,
            self.get_release,
        )

    async def _page(self, url: str, resource_type: str, next_url: Optional[str], params: List) -> Dict[str, Any]:
        # A next_url already carries the query of the original request; only per_page may be overridden
        if next_url:
            params = [(key, value) for key, value in params if key == "per_page"]
            url = next_url
        try:
            envelope = await self.client.fetch_collection(
                RequestDescriptor(url=url, params=params or None), resource_type
            )
        except ApiClientError as e:
            return error_response(e)
        return PagedResult.from_envelope(envelope).model_dump(exclude_none=True)

    ################################## Organizations and projects

    async def list_organizations(self, admin: Optional[bool] = None) -> Dict[str, Any]:
        """
        Lists the organizations the current user belongs to, including the ID needed to list their projects.
        :param admin: Optional. true to only return organizations the user is an administrator of.
        """
        params = []
        if admin is not None:
            params.append(("admin", "true" if admin else "false"))
        try:
            envelope = await self.client.fetch_collection(
                RequestDescriptor(url="/user/organizations", params=params or None),
                "organization",
                fetch_all=True,
            )
        except ApiClientError as e:
            return error_response(e)
        return PagedResult.from_envelope(envelope).model_dump(exclude_none=True)

    async def list_projects(
            self,
            organization_id: str,
            q: Optional[str] = None,
            per_page: Optional[int] = None,
            next_url: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Lists the projects in an organization. Each project carries the ID required by every other project tool.
        :param organization_id: Required. The organization ID, from list_organizations.
        :param q: Optional. Only return projects whose name contains this text.
        :param per_page: Optional. Number of projects per page.
        :param next_url: Optional. The 'next' value from a previous call, to fetch the following page.
        """
        return await self._page(
            f"/organizations/{quote(organization_id, safe='')}/projects",
            "project",
            next_url,
            _page_params(per_page, q=q),
        )

    ################################## Errors

    async def list_project_errors(
            self,
            project_id: str,
            filters: Optional[Dict[str, List[Dict[str, Any]]]] = None,
            sort: Optional[str] = None,
            direction: Optional[str] = None,
            per_page: Optional[int] = None,
            next_url: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Lists the errors in a project. The response contains the page of errors in 'data', the number of
        errors on this page in 'count', the number of errors across all pages in 'total' and, when there
        are more pages, the URL to pass back as next_url in 'next'.

        :param project_id: Required. The project ID, from list_projects.
        :param filters: Optional. Field name mapped to a list of comparisons, e.g.
            {"error.status": [{"type": "eq", "value": "open"}], "event.since": [{"type": "eq", "value": "7d"}]}.
            Comparison types are 'eq', 'ne' and 'empty'. Defaults to open errors seen in the last 30 days.
            Use list_project_event_fields to discover filterable fields.
        :param sort: Optional. One of 'last_seen', 'first_seen', 'users', 'events', 'unsorted'.
        :param direction: Optional. 'asc' or 'desc'.
        :param per_page: Optional. Number of errors per page (max 100).
        :param next_url: Optional. The 'next' value from a previous call. filters, sort and direction
            are ignored when it is given.
        """
        params = _page_params(per_page, sort=sort, direction=direction)
        if not next_url:
            params.extend(encode_filters(filters if filters is not None else DEFAULT_ERROR_FILTERS))
        return await self._page(
            f"/projects/{quote(project_id, safe='')}/errors", "error", next_url, params
        )

    async def get_error(self, project_id: str, error_id: str) -> Dict[str, Any]:
        """
        Returns the full details of an error: class, message, severity, status, first and last seen times
        and event counts.
        :param project_id: Required. The project ID.
        :param error_id: Required. The error ID, from list_project_errors.
        """
        try:
            envelope = await self.client.request_object(
                RequestDescriptor(url=f"/projects/{quote(project_id, safe='')}/errors/{quote(error_id, safe='')}"),
                "error",
            )
        except ApiClientError as e:
            return error_response(e)
        return envelope.body

    async def update_error(
            self, project_id: str, error_id: str, operation: str, severity: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Changes the workflow state of an error.
        :param project_id: Required. The project ID.
        :param error_id: Required. The error ID.
        :param operation: Required. One of 'open', 'fix', 'ignore', 'discard', 'undiscard', 'snooze',
            'override_severity', 'assign', 'create_issue', 'link_issue', 'unlink_issue'.
        :param severity: Required with 'override_severity'. One of 'info', 'warning', 'error'.
        """
        if operation not in ERROR_OPERATIONS:
            return {
                "error": f"Invalid operation: {operation}",
                "valid_operations": ERROR_OPERATIONS,
            }
        body: Dict[str, Any] = {"operation": operation}
        if operation == "override_severity":
            if severity is None:
                return {"error": "severity is required when operation is 'override_severity'"}
            body["severity"] = severity

        try:
            envelope = await self.client.request_object(
                RequestDescriptor(
                    method="PATCH",
                    url=f"/projects/{quote(project_id, safe='')}/errors/{quote(error_id, safe='')}",
                    body=body,
                ),
                "error",
            )
        except ApiClientError as e:
            return error_response(e)
        result: Dict[str, Any] = {"success": True, "status": envelope.status}
        if envelope.body:
            result["updated_error"] = envelope.body
        return result

    async def list_project_event_fields(self, project_id: str) -> Dict[str, Any]:
        """
        Lists the event fields of a project that can be used as filters in list_project_errors.
        :param project_id: Required. The project ID.
        """
        try:
            envelope = await self.client.fetch_collection(
                RequestDescriptor(url=f"/projects/{quote(project_id, safe='')}/event_fields"),
                "event_field",
                fetch_all=True,
            )
        except ApiClientError as e:
            return error_response(e)
        return PagedResult.from_envelope(envelope).model_dump(exclude_none=True)

    ################################## Builds and releases

    async def list_builds(
            self,
            project_id: str,
            release_stage: Optional[str] = None,
            per_page: Optional[int] = None,
            next_url: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Lists the builds (app versions) of a project, newest first.
        :param project_id: Required. The project ID.
        :param release_stage: Optional. Only builds released to this stage, e.g. 'production'.
        :param per_page: Optional. Number of builds per page.
        :param next_url: Optional. The 'next' value from a previous call.
        """
        return await self._page(
            f"/projects/{quote(project_id, safe='')}/releases",
            "build",
            next_url,
            _page_params(per_page, release_stage=release_stage),
        )

    async def get_build(self, project_id: str, build_id: str) -> Dict[str, Any]:
        """
        Returns the details of a build, including source control information and error counts.
        :param project_id: Required. The project ID.
        :param build_id: Required. The build ID, from list_builds.
        """
        try:
            envelope = await self.client.request_object(
                RequestDescriptor(url=f"/projects/{quote(project_id, safe='')}/releases/{quote(build_id, safe='')}"),
                "build_detail",
            )
        except ApiClientError as e:
            return error_response(e)
        return envelope.body

    async def list_releases(
            self,
            project_id: str,
            release_stage: str = "production",
            visible_only: bool = True,
            per_page: Optional[int] = None,
            next_url: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Lists the releases of a project. A release groups every build of the same app version.
        :param project_id: Required. The project ID.
        :param release_stage: Optional. The release stage to list. Defaults to 'production'.
        :param visible_only: Optional. Hide releases that have been marked hidden. Defaults to true.
        :param per_page: Optional. Number of releases per page.
        :param next_url: Optional. The 'next' value from a previous call.
        """
        return await self._page(
            f"/projects/{quote(project_id, safe='')}/release_groups",
            "release",
            next_url,
            _page_params(
                per_page,
                release_stage_name=release_stage,
                visible_only="true" if visible_only else "false",
            ),
        )

    async def get_release(self, release_id: str) -> Dict[str, Any]:
        """
        Returns a release and its stability figures.
        :param release_id: Required. The release ID, from list_releases.
        """
        try:
            envelope = await self.client.request_object(
                RequestDescriptor(url=f"/release_groups/{quote(release_id, safe='')}"), "release"
            )
        except ApiClientError as e:
            return error_response(e)
        return envelope.body
