"""Project metadata and the POM fields derived from it.

``ProjectMetadata`` is declared once per build (usually through the GitHub
or GitLab presets and a license preset). ``build_pom_metadata`` flattens it
into the ``PomMetadata`` transfer object consumed by POM assembly.

Example:
    >>> metadata = ProjectMetadata.github("example", "widgets").with_license(mit_license())
    >>> pom = build_pom_metadata("widgets-core", "Widgets", metadata)
    >>> pom.scm_connection
    'scm:git:https://github.com/example/widgets.git'
    >>> pom.license_name
    'MIT License'
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, field_validator


def _strip_optional(value: object) -> object:
    if value is None:
        return None
    if isinstance(value, str):
        normalized = value.strip()
        return normalized or None
    return value


class ScmInfo(BaseModel):
    """Source control coordinates.

    Attributes:
        connection: Read-only SCM URL (``scm:git:https://...``).
        developer_connection: Read/write SCM URL (``scm:git:ssh://...``).
        url: Browsable repository URL.
    """

    model_config = ConfigDict(frozen=True)

    connection: str
    developer_connection: str
    url: str


class IssuesInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    system: str
    url: str


class CiInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    system: str
    url: str


class LicenseInfo(BaseModel):
    """A license with its SPDX identifier and canonical text URL."""

    model_config = ConfigDict(frozen=True)

    name: str
    spdx: str
    url: str


def mit_license() -> LicenseInfo:
    return LicenseInfo(name="MIT License", spdx="MIT", url="https://opensource.org/licenses/MIT")


def apache2_license() -> LicenseInfo:
    return LicenseInfo(
        name="Apache License, Version 2.0",
        spdx="Apache-2.0",
        url="https://opensource.org/licenses/Apache-2.0",
    )


def gpl3_only_license() -> LicenseInfo:
    return LicenseInfo(
        name="GNU General Public License version 3",
        spdx="GPL-3.0-only",
        url="https://www.gnu.org/licenses/gpl-3.0-standalone.html",
    )


def lgpl3_only_license() -> LicenseInfo:
    return LicenseInfo(
        name="GNU Lesser General Public License version 3",
        spdx="LGPL-3.0-only",
        url="https://www.gnu.org/licenses/lgpl-3.0-standalone.html",
    )


def epl2_license() -> LicenseInfo:
    return LicenseInfo(
        name="Eclipse Public License - v 2.0",
        spdx="EPL-2.0",
        url="https://www.eclipse.org/legal/epl-2.0/",
    )


LICENSE_PRESETS = {
    "MIT": mit_license,
    "Apache-2.0": apache2_license,
    "GPL-3.0-only": gpl3_only_license,
    "LGPL-3.0-only": lgpl3_only_license,
    "EPL-2.0": epl2_license,
}


def license_for_spdx(spdx: str) -> LicenseInfo:
    """Return the preset license for an SPDX identifier.

    Raises:
        KeyError: If no preset exists for the identifier.
    """
    return LICENSE_PRESETS[spdx.strip()]()


class ProjectMetadata(BaseModel):
    """Declarative project metadata shared by every published module."""

    model_config = ConfigDict(frozen=True)

    scm: ScmInfo | None = None
    issues: IssuesInfo | None = None
    ci: CiInfo | None = None
    license: LicenseInfo | None = None

    @classmethod
    def github(cls, user: str, repo: str, *, ci: bool = True) -> ProjectMetadata:
        """Metadata for a project hosted on GitHub, built with GitHub Actions."""
        base = f"https://github.com/{user}/{repo}"
        return cls(
            scm=ScmInfo(
                connection=f"scm:git:{base}.git",
                developer_connection=f"scm:git:ssh://git@github.com/{user}/{repo}.git",
                url=base,
            ),
            issues=IssuesInfo(system="GitHub", url=f"{base}/issues"),
            ci=CiInfo(system="GitHub Actions", url=f"{base}/actions") if ci else None,
        )

    @classmethod
    def gitlab(cls, user: str, repo: str, *, ci: bool = True) -> ProjectMetadata:
        """Metadata for a project hosted on GitLab, built with GitLab CI."""
        base = f"https://gitlab.com/{user}/{repo}"
        return cls(
            scm=ScmInfo(
                connection=f"scm:git:{base}.git",
                developer_connection=f"scm:git:ssh://git@gitlab.com/{user}/{repo}.git",
                url=base,
            ),
            issues=IssuesInfo(system="GitLab", url=f"{base}/-/issues"),
            ci=CiInfo(system="GitLab CI", url=f"{base}/-/pipelines") if ci else None,
        )

    def with_license(self, license: LicenseInfo) -> ProjectMetadata:
        return self.model_copy(update={"license": license})

    def with_ci(self, ci: CiInfo | None) -> ProjectMetadata:
        return self.model_copy(update={"ci": ci})


class PomMetadata(BaseModel):
    """Flat POM fields handed to the POM assembler.

    Every field except ``name`` is optional; absent fields are left out of
    the generated POM.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    description: str | None = None
    url: str | None = None
    ci_system: str | None = None
    ci_url: str | None = None
    issues_system: str | None = None
    issues_url: str | None = None
    license_name: str | None = None
    license_url: str | None = None
    scm_connection: str | None = None
    scm_developer_connection: str | None = None
    scm_url: str | None = None

    @field_validator("description", mode="before")
    @classmethod
    def normalize_description(cls, value: object) -> object:
        return _strip_optional(value)

    def fields(self) -> dict[str, str]:
        """Return only the populated POM fields."""
        return {key: value for key, value in self.model_dump().items() if value is not None}


def build_pom_metadata(
    project_name: str, description: str | None, metadata: ProjectMetadata
) -> PomMetadata:
    """Copy project metadata into the POM transfer object.

    The project URL is the SCM browse URL.
    """
    scm = metadata.scm
    return PomMetadata(
        name=project_name,
        description=description,
        url=scm.url if scm else None,
        ci_system=metadata.ci.system if metadata.ci else None,
        ci_url=metadata.ci.url if metadata.ci else None,
        issues_system=metadata.issues.system if metadata.issues else None,
        issues_url=metadata.issues.url if metadata.issues else None,
        license_name=metadata.license.name if metadata.license else None,
        license_url=metadata.license.url if metadata.license else None,
        scm_connection=scm.connection if scm else None,
        scm_developer_connection=scm.developer_connection if scm else None,
        scm_url=scm.url if scm else None,
    )
