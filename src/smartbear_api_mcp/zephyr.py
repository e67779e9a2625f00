from typing import Any, Dict, List, Optional
from urllib.parse import quote

from mcp.server import FastMCP

from .agent import ProductAgent, error_response
from .client import ResourceClient
from .errors import ApiClientError
from .models import FieldPolicy, RequestDescriptor

# Zephyr pages inside the body rather than with Link headers
FIELD_POLICIES = {
    "page": FieldPolicy.allow("values", "startAt", "maxResults", "total", "isLast", "next"),
    "cursor_page": FieldPolicy.allow("values", "limit", "nextStartAtId", "next"),
    "project": FieldPolicy.allow("id", "key", "jiraProjectId", "enabled"),
    "test_case": FieldPolicy.passthrough(),
    "created_resource": FieldPolicy.passthrough(),
}


def _params(**values: Any) -> Optional[List]:
    params = [(key, value) for key, value in values.items() if value is not None]
    return params or None


class ZephyrAgent(ProductAgent):
    """Test management in Zephyr: projects, test cases, test cycles and test executions."""
    name = "Zephyr"
    prefix = "zephyr"

    def __init__(self, mcp_server: FastMCP, client: ResourceClient):
        super().__init__(mcp_server, client)
        self.register_tools(
            self.list_projects,
            self.get_project,
            self.list_test_cases,
            self.get_test_case,
            self.create_test_case,
            self.list_test_cycles,
            self.list_test_executions,
        )

    async def _get(self, url: str, resource_type: str, params: Optional[List] = None) -> Dict[str, Any]:
        try:
            envelope = await self.client.request_object(RequestDescriptor(url=url, params=params), resource_type)
        except ApiClientError as e:
            return error_response(e)
        return envelope.body

    async def list_projects(self, max_results: int = 10, start_at: int = 0) -> Dict[str, Any]:
        """
        Lists the Jira projects that have Zephyr enabled.
        :param max_results: Optional. Page size. Defaults to 10.
        :param start_at: Optional. Zero-based index of the first project to return.
        """
        return await self._get("/projects", "page", _params(maxResults=max_results, startAt=start_at))

    async def get_project(self, project_id_or_key: str) -> Dict[str, Any]:
        """
        Returns a Zephyr project.
        :param project_id_or_key: Required. The project ID or Jira key, e.g. 'PROJ'.
        """
        return await self._get(f"/projects/{quote(project_id_or_key, safe='')}", "project")

    async def list_test_cases(
            self,
            project_key: Optional[str] = None,
            folder_id: Optional[int] = None,
            limit: int = 10,
            start_at_id: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Lists test cases, oldest first. Results are cursor paginated: pass 'nextStartAtId' from one
        response as start_at_id to get the following page.
        :param project_key: Optional. Only test cases of this Jira project.
        :param folder_id: Optional. Only test cases in this folder.
        :param limit: Optional. Page size. Defaults to 10.
        :param start_at_id: Optional. Test case ID to start from.
        """
        return await self._get(
            "/testcases/nextgen",
            "cursor_page",
            _params(projectKey=project_key, folderId=folder_id, limit=limit, startAtId=start_at_id),
        )

    async def get_test_case(self, test_case_key: str) -> Dict[str, Any]:
        """
        Returns a test case, including objective, precondition, status, priority and labels.
        :param test_case_key: Required. The test case key, e.g. 'PROJ-T123'.
        """
        return await self._get(f"/testcases/{quote(test_case_key, safe='')}", "test_case")

    async def create_test_case(
            self,
            project_key: str,
            name: str,
            objective: Optional[str] = None,
            precondition: Optional[str] = None,
            status_name: Optional[str] = None,
            priority_name: Optional[str] = None,
            folder_id: Optional[int] = None,
            labels: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        """
        Creates a test case and returns its ID and key.
        :param project_key: Required. The Jira project key.
        :param name: Required. The test case name.
        :param objective: Optional. What the test verifies.
        :param precondition: Optional. Conditions required before running the test.
        :param status_name: Optional. e.g. 'Draft', 'Approved'.
        :param priority_name: Optional. e.g. 'Normal', 'High'.
        :param folder_id: Optional. Folder to create the test case in.
        :param labels: Optional. Labels to attach.
        """
        body = {
            key: value
            for key, value in {
                "projectKey": project_key,
                "name": name,
                "objective": objective,
                "precondition": precondition,
                "statusName": status_name,
                "priorityName": priority_name,
                "folderId": folder_id,
                "labels": labels,
            }.items()
            if value is not None
        }
        try:
            envelope = await self.client.request_object(
                RequestDescriptor(method="POST", url="/testcases", body=body), "created_resource"
            )
        except ApiClientError as e:
            return error_response(e)
        return envelope.body

    async def list_test_cycles(
            self,
            project_key: Optional[str] = None,
            folder_id: Optional[int] = None,
            max_results: int = 10,
            start_at: int = 0,
    ) -> Dict[str, Any]:
        """
        Lists test cycles.
        :param project_key: Optional. Only test cycles of this Jira project.
        :param folder_id: Optional. Only test cycles in this folder.
        :param max_results: Optional. Page size. Defaults to 10.
        :param start_at: Optional. Zero-based index of the first test cycle to return.
        """
        return await self._get(
            "/testcycles",
            "page",
            _params(projectKey=project_key, folderId=folder_id, maxResults=max_results, startAt=start_at),
        )

    async def list_test_executions(
            self,
            project_key: Optional[str] = None,
            test_cycle: Optional[str] = None,
            test_case: Optional[str] = None,
            max_results: int = 10,
            start_at: int = 0,
    ) -> Dict[str, Any]:
        """
        Lists test executions, optionally narrowed to a test cycle or a test case.
        :param project_key: Optional. Only executions of this Jira project.
        :param test_cycle: Optional. Test cycle key, e.g. 'PROJ-R1'.
        :param test_case: Optional. Test case key, e.g. 'PROJ-T1'.
        :param max_results: Optional. Page size. Defaults to 10.
        :param start_at: Optional. Zero-based index of the first execution to return.
        """
        return await self._get(
            "/testexecutions",
            "page",
            _params(
                projectKey=project_key,
                testCycle=test_cycle,
                testCase=test_case,
                maxResults=max_results,
                startAt=start_at,
            ),
        )
