"""
Project lifecycle for ContamMap.
A Project owns the contig registry, motif set and bin registry built from
one set of input files; the ProjectManager holds open projects by id and
serializes access to each of them.
"""

import json
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, FrozenSet, Iterable, Iterator, List, Optional, Tuple
import logging

from src.contam_map.core.assignments import load_assignments, save_assignments, update_assignments
from src.contam_map.core.errors import (
    BinNotFoundError,
    DataLoadError,
    PersistenceError,
    ProjectExistsError,
    ProjectNotFoundError,
)
from src.contam_map.core.heatmap import HeatmapData, HeatmapQuery, get_heatmap_data
from src.contam_map.core.models import Bin, BinQuality, Contig, ContigAssignment, MotifKey
from src.contam_map.core.registry import assert_contig_overlap, build_bin_registry, build_contig_registry
from src.contam_map.parsers.checkm2_parser import parse_checkm2
from src.contam_map.parsers.contig_bin_parser import parse_contig_bin
from src.contam_map.parsers.methylation_parser import parse_methylation

logger = logging.getLogger(__name__)

PROJECT_FILE = "project.json"
METADATA_FILE = "contig_metadata.tsv"


@dataclass
class ProjectDetails:
    """
    Input and output locations of a project, persisted as project.json.
    """
    project_id: str
    methylation_data_path: Path
    contig_bin_path: Path
    output_path: Path
    bin_quality_path: Optional[Path] = None

    def __post_init__(self):
        self.methylation_data_path = Path(self.methylation_data_path)
        self.contig_bin_path = Path(self.contig_bin_path)
        self.output_path = Path(self.output_path)
        if self.bin_quality_path is not None:
            self.bin_quality_path = Path(self.bin_quality_path)

    def to_json(self) -> str:
        return json.dumps({
            'project_id': self.project_id,
            'methylation_data_path': str(self.methylation_data_path),
            'contig_bin_path': str(self.contig_bin_path),
            'bin_quality_path': None if self.bin_quality_path is None else str(self.bin_quality_path),
            'output_path': str(self.output_path),
        }, indent=2)

    @classmethod
    def from_file(cls, project_file: Path) -> "ProjectDetails":
        try:
            with open(project_file, 'r', encoding='utf-8') as f:
                raw = json.load(f)
        except FileNotFoundError:
            raise ProjectNotFoundError(f"Project file {project_file} does not exist")
        except (OSError, ValueError) as e:
            raise DataLoadError(f"Could not read project file {project_file}: {e}")

        try:
            return cls(
                project_id=raw['project_id'],
                methylation_data_path=raw['methylation_data_path'],
                contig_bin_path=raw['contig_bin_path'],
                output_path=raw['output_path'],
                bin_quality_path=raw.get('bin_quality_path'),
            )
        except KeyError as e:
            raise DataLoadError(f"Project file {project_file} is missing field {e}")


class Project:
    """
    The working unit: contig registry, motif set and bin registry of one dataset.
    The contig registry and motif set never change after construction; bin
    assignments change through update_assignments and are written by
    save_assignments.
    """

    def __init__(self, details: ProjectDetails, contigs: Dict[str, Contig],
                 motifs: Iterable[MotifKey], bins: Dict[str, Bin]):
        self.details = details
        self.contigs = contigs
        self.motifs: FrozenSet[MotifKey] = frozenset(motifs)
        self.bins = bins

    @property
    def project_id(self) -> str:
        return self.details.project_id

    @property
    def metadata_path(self) -> Path:
        return self.details.output_path / METADATA_FILE

    @property
    def project_file(self) -> Path:
        return self.details.output_path / PROJECT_FILE

    @staticmethod
    def load_methylation(methylation_path: Path) -> Tuple[Dict[str, Contig], FrozenSet[MotifKey]]:
        df = parse_methylation(str(methylation_path))
        contigs, motifs = build_contig_registry(df.itertuples(index=False))
        return contigs, frozenset(motifs)

    @classmethod
    def create(cls, details: ProjectDetails) -> "Project":
        """
        Build a new project from its input files and write project.json and
        contig_metadata.tsv into the output directory.

        :param details: Project inputs and output directory.
        :return: The new Project.
        :raises DataLoadError: On unreadable or malformed inputs.
        :raises DataAssertionError: If the inputs cannot form a usable project.
        :raises PersistenceError: If the output files cannot be written.
        """
        logger.info(f"Creating project {details.project_id}")
        contig_bin = parse_contig_bin(str(details.contig_bin_path))
        quality = None
        if details.bin_quality_path is not None:
            quality = parse_checkm2(str(details.bin_quality_path)).itertuples(index=False)
        bins = build_bin_registry(contig_bin.itertuples(index=False), quality)

        contigs, motifs = cls.load_methylation(details.methylation_data_path)
        assert_contig_overlap(contigs, bins)

        project = cls(details, contigs, motifs, bins)
        try:
            details.output_path.mkdir(parents=True, exist_ok=True)
            with open(project.project_file, 'w', encoding='utf-8') as f:
                f.write(details.to_json())
        except OSError as e:
            logger.error(f"Could not create project file: {e}")
            raise PersistenceError(f"Could not create project file {project.project_file}: {e}")

        project.save_assignments()
        logger.info(f"Project {details.project_id} created in {details.output_path}")
        return project

    @classmethod
    def load(cls, project_file: Path) -> "Project":
        """
        Reopen a project from its project.json. Contigs are rebuilt from the
        methylation file and bins, with all assignments, from contig_metadata.tsv.

        :param project_file: Path to project.json.
        :return: The reopened Project.
        """
        details = ProjectDetails.from_file(Path(project_file))
        logger.info(f"Loading project {details.project_id}")

        contigs, motifs = cls.load_methylation(details.methylation_data_path)
        bins = load_assignments(details.output_path / METADATA_FILE)
        return cls(details, contigs, motifs, bins)

    def bin_ids(self, quality_filter: Optional[Iterable[BinQuality]] = None) -> List[str]:
        """
        Sorted bin ids, optionally restricted to bins whose quality is in quality_filter.
        """
        if not quality_filter:
            return sorted(self.bins)
        wanted = set(quality_filter)
        return sorted(bin_id for bin_id, b in self.bins.items() if b.quality in wanted)

    def contig_ids(self) -> List[str]:
        return sorted(self.contigs)

    def contigs_in_bin(self, bin_id: str) -> List[ContigAssignment]:
        b = self.bins.get(bin_id)
        if b is None:
            raise BinNotFoundError(f"Bin '{bin_id}' not found.")
        return list(b.contig_assignments)

    def update_assignments(self, bin_id: str, assignments: List[ContigAssignment]) -> Bin:
        return update_assignments(self.bins, bin_id, assignments)

    def save_assignments(self):
        save_assignments(self.bins, self.metadata_path)

    def heatmap(self, query: HeatmapQuery) -> HeatmapData:
        return get_heatmap_data(query, self.contigs, self.bins)


class ProjectManager:
    """
    Registry of open projects. Each project has its own lock; callers access a
    project only inside the project() context, which holds that lock.
    """

    def __init__(self):
        self._projects: Dict[str, Tuple[Project, threading.RLock]] = {}
        self._lock = threading.Lock()

    def _register(self, project: Project):
        with self._lock:
            self._check_free(project.project_id)
            self._projects[project.project_id] = (project, threading.RLock())

    def _check_free(self, project_id: str):
        # Caller holds self._lock
        if project_id in self._projects:
            raise ProjectExistsError(f"Project id '{project_id}' Already Exists. Close existing.")

    def add_project(self, details: ProjectDetails) -> Project:
        with self._lock:
            self._check_free(details.project_id)
        # Built outside the registry lock; the id is checked again on insertion
        project = Project.create(details)
        self._register(project)
        return project

    def load_project(self, project_file: Path) -> Project:
        project = Project.load(project_file)
        self._register(project)
        logger.info(f"Loaded project: {project.project_id}")
        return project

    def close_project(self, project_id: str):
        with self._lock:
            if self._projects.pop(project_id, None) is None:
                raise ProjectNotFoundError(f"Could not find project id '{project_id}'.")

    def project_ids(self) -> List[str]:
        with self._lock:
            return sorted(self._projects)

    @contextmanager
    def project(self, project_id: str) -> Iterator[Project]:
        with self._lock:
            entry = self._projects.get(project_id)
        if entry is None:
            raise ProjectNotFoundError(f"Could not find project id '{project_id}'.")
        project, lock = entry
        with lock:
            yield project
