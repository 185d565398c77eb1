"""Thin client for the parts of the GitHub REST API used to provision student repositories.

Only a few operations are needed: generate a repository from a template, check that a
repository still exists, find one by name, check whether it is empty, and delete it.
Every call has a bounded timeout; a timeout is reported as ``RepositoryServiceTimeout``
and never as success, since GitHub may or may not have finished creating the repository.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Optional

import requests

logger = logging.getLogger(__name__)

NO_CACHE_HEADERS = {"Cache-Control": "no-cache, no-store"}


class RepositoryServiceError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RepositoryServiceTimeout(RepositoryServiceError):
    pass


class RepositoryNotFound(RepositoryServiceError):
    pass


class RepositoryNameTaken(RepositoryServiceError):
    pass


class RepositoryService(ABC):
    """Operations the provisioning workflow needs from the hosting service."""

    @abstractmethod
    def create_repository(
        self,
        template_repo_id: int,
        owner: str,
        name: str,
        private: bool = True,
        collaborator: Optional[str] = None,
    ) -> int:
        """Generate ``owner/name`` from the template and return the new repository id."""

    @abstractmethod
    def repository_exists(self, repo_id: int, no_cache: bool = False) -> bool:
        ...

    @abstractmethod
    def repository_id(self, owner: str, name: str, template_repo_id: Optional[int] = None) -> Optional[int]:
        """Id of ``owner/name``, or None if it does not exist or was not generated from ``template_repo_id``."""

    @abstractmethod
    def repository_empty(self, repo_id: int) -> bool:
        """True when the repository has no commits beyond the generated scaffold."""

    @abstractmethod
    def delete_repository(self, repo_id: int) -> bool:
        ...


class GitHubRepositoryService(RepositoryService):
    def __init__(self, token: str, api_url: str = "https://api.github.com", timeout: float = 10):
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update(
            {
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
            }
        )
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"

    @classmethod
    def from_config(cls, config) -> "GitHubRepositoryService":
        return cls(
            token=config.get("GITHUB_TOKEN", ""),
            api_url=config.get("GITHUB_API_URL", "https://api.github.com"),
            timeout=float(config.get("GITHUB_TIMEOUT", 10)),
        )

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        url = f"{self.api_url}{path}"
        try:
            return self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.Timeout as exc:
            logger.warning("GitHub %s %s timed out after %ss", method, path, self.timeout)
            raise RepositoryServiceTimeout(f"{method} {path} timed out") from exc
        except requests.RequestException as exc:
            logger.error("GitHub %s %s failed: %s", method, path, exc)
            raise RepositoryServiceError(f"{method} {path} failed: {exc}") from exc

    def _raise_for(self, resp: requests.Response, what: str) -> None:
        if resp.status_code == 404:
            raise RepositoryNotFound(f"{what}: not found", resp.status_code)
        logger.error("GitHub %s returned %s %s", what, resp.status_code, resp.text)
        raise RepositoryServiceError(f"{what}: HTTP {resp.status_code}", resp.status_code)

    def create_repository(self, template_repo_id, owner, name, private=True, collaborator=None):
        resp = self._request("GET", f"/repositories/{template_repo_id}")
        if resp.status_code != 200:
            self._raise_for(resp, f"template {template_repo_id}")
        template_full_name = resp.json()["full_name"]

        payload = {"owner": owner, "name": name, "private": private, "include_all_branches": False}
        resp = self._request("POST", f"/repos/{template_full_name}/generate", json=payload)
        if resp.status_code == 422 and "already exists" in resp.text:
            raise RepositoryNameTaken(f"{owner}/{name} already exists", resp.status_code)
        if resp.status_code != 201:
            self._raise_for(resp, f"generate {owner}/{name}")
        repo = resp.json()
        repo_id = int(repo["id"])

        if collaborator:
            try:
                self._add_collaborator(repo["full_name"], collaborator)
            except RepositoryServiceError:
                logger.warning(
                    "removing %s (%s): collaborator %s could not be added", repo["full_name"], repo_id, collaborator
                )
                try:
                    self.delete_repository(repo_id)
                except RepositoryServiceError:
                    logger.exception("could not delete repository %s", repo_id)
                raise
        logger.info("created repository %s (%s) from template %s", repo["full_name"], repo_id, template_full_name)
        return repo_id

    def _add_collaborator(self, full_name: str, login: str) -> None:
        resp = self._request("PUT", f"/repos/{full_name}/collaborators/{login}", json={"permission": "push"})
        # 201: invitation created, 204: already a collaborator
        if resp.status_code not in (201, 204):
            self._raise_for(resp, f"add collaborator {login} to {full_name}")

    def repository_exists(self, repo_id, no_cache=False):
        headers = NO_CACHE_HEADERS if no_cache else None
        resp = self._request("GET", f"/repositories/{repo_id}", headers=headers)
        if resp.status_code == 200:
            return True
        if resp.status_code == 404:
            return False
        self._raise_for(resp, f"repository {repo_id}")
        return False

    def repository_id(self, owner, name, template_repo_id=None):
        resp = self._request("GET", f"/repos/{owner}/{name}", headers=NO_CACHE_HEADERS)
        if resp.status_code == 404:
            return None
        if resp.status_code != 200:
            self._raise_for(resp, f"repository {owner}/{name}")
        repo = resp.json()
        template = repo.get("template_repository") or {}
        if template_repo_id is not None and template.get("id") != template_repo_id:
            return None
        return int(repo["id"])

    def repository_empty(self, repo_id):
        resp = self._request("GET", f"/repositories/{repo_id}/commits", params={"per_page": 2})
        # GitHub answers 409 for a repository without any git data
        if resp.status_code == 409:
            return True
        if resp.status_code != 200:
            self._raise_for(resp, f"commits of {repo_id}")
        return len(resp.json()) <= 1

    def delete_repository(self, repo_id):
        resp = self._request("DELETE", f"/repositories/{repo_id}")
        if resp.status_code in (204, 404):
            return True
        self._raise_for(resp, f"delete {repo_id}")
        return False
