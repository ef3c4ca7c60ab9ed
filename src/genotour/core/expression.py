"""
Gene-expression experiments: an expression matrix bundled with sample
metadata, in the manner of a microarray time-series study.
"""

from pathlib import Path
from typing import Callable, Iterable, Optional
import numpy as np
import pandas as pd
import structlog

from ..models import ExpressionSummary


def _read_table(path: Path) -> pd.DataFrame:
    """Read a delimited table whose first column is the index."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Table not found: {path}")
    separator = "," if path.suffix.lower() == ".csv" else "\t"
    return pd.read_csv(path, sep=separator, index_col=0)


class ExpressionExperiment:
    """An expression matrix (features x samples) with a phenotype table."""

    def __init__(self, matrix: pd.DataFrame, phenotype: pd.DataFrame):
        """
        Initialize the experiment.

        Args:
            matrix: Expression values, features as rows and samples as columns
            phenotype: Sample metadata, one row per sample

        Raises:
            ValueError: If the matrix samples and phenotype samples differ
        """
        matrix_samples = [str(s) for s in matrix.columns]
        phenotype_samples = [str(s) for s in phenotype.index]
        missing = sorted(set(matrix_samples) - set(phenotype_samples))
        extra = sorted(set(phenotype_samples) - set(matrix_samples))
        if missing or extra:
            raise ValueError(
                "Expression matrix and phenotype table describe different samples "
                f"(no metadata for: {missing}; no expression for: {extra})"
            )
        if len(set(matrix_samples)) != len(matrix_samples):
            raise ValueError("Expression matrix has duplicated sample names")

        self.matrix = matrix.copy()
        self.matrix.columns = matrix_samples
        phenotype = phenotype.copy()
        phenotype.index = phenotype_samples
        # Phenotype rows follow matrix column order
        self.phenotype = phenotype.loc[matrix_samples]

    @classmethod
    def from_files(
        cls,
        matrix_path: Path,
        phenotype_path: Path,
        logger: Optional[structlog.BoundLogger] = None
    ) -> "ExpressionExperiment":
        """Load an experiment from a matrix file and a phenotype file."""
        experiment = cls(_read_table(matrix_path), _read_table(phenotype_path))
        if logger is not None:
            logger.info("Expression experiment loaded",
                        matrix=str(matrix_path),
                        phenotype=str(phenotype_path),
                        features=experiment.shape[0],
                        samples=experiment.shape[1])
        return experiment

    @property
    def shape(self):
        return self.matrix.shape

    @property
    def samples(self):
        return list(self.matrix.columns)

    @property
    def features(self):
        return list(self.matrix.index)

    def __len__(self):
        return self.matrix.shape[0]

    def __repr__(self):
        return (f"ExpressionExperiment(features={self.shape[0]}, samples={self.shape[1]}, "
                f"phenotype_columns={list(self.phenotype.columns)})")

    def _require_column(self, column: str) -> None:
        if column not in self.phenotype.columns:
            raise KeyError(
                f"Phenotype column '{column}' not found. "
                f"Available: {', '.join(map(str, self.phenotype.columns))}"
            )

    def _equals_mask(self, column: str, value) -> pd.Series:
        """Match a phenotype column against a value given as text or number."""
        values = self.phenotype[column]
        if pd.api.types.is_numeric_dtype(values) and not pd.api.types.is_bool_dtype(values):
            number = pd.to_numeric(pd.Series([value]), errors="coerce").iloc[0]
            if pd.isna(number):
                return pd.Series(False, index=self.phenotype.index)
            return pd.Series(np.isclose(values.astype(float), float(number)), index=self.phenotype.index)
        return values.astype(str) == str(value)

    def subset(
        self,
        predicate: Optional[Callable[[pd.DataFrame], pd.Series]] = None,
        **equals
    ) -> "ExpressionExperiment":
        """
        Subset samples by a metadata predicate.

        Either pass a callable taking the phenotype table and returning a
        boolean mask, or column=value pairs that must all match. Both may be
        combined.
        """
        mask = pd.Series(True, index=self.phenotype.index)
        if predicate is not None:
            mask &= pd.Series(predicate(self.phenotype), index=self.phenotype.index).astype(bool)
        for column, value in equals.items():
            self._require_column(column)
            mask &= self._equals_mask(column, value)
        keep = list(self.phenotype.index[mask])
        return ExpressionExperiment(self.matrix[keep], self.phenotype.loc[keep])

    def select_features(self, names: Iterable[str]) -> "ExpressionExperiment":
        """Subset rows to the named features."""
        names = list(names)
        unknown = [n for n in names if n not in self.matrix.index]
        if unknown:
            raise KeyError(f"Features not found: {', '.join(unknown)}")
        return ExpressionExperiment(self.matrix.loc[names], self.phenotype)

    def time_course(
        self,
        feature: str,
        time_column: str = "time",
        condition_column: Optional[str] = None
    ) -> pd.DataFrame:
        """
        Return one feature's expression as a long table sorted by time.

        Columns are sample, time, condition and expression. Without a
        condition column every sample is labelled "all".
        """
        if feature not in self.matrix.index:
            raise KeyError(f"Feature not found: {feature}")
        self._require_column(time_column)
        if condition_column is not None:
            self._require_column(condition_column)
            conditions = self.phenotype[condition_column].astype(str)
        else:
            conditions = pd.Series("all", index=self.phenotype.index)
        course = pd.DataFrame({
            "sample": self.samples,
            "time": pd.to_numeric(self.phenotype[time_column], errors="coerce").values,
            "condition": conditions.values,
            "expression": self.matrix.loc[feature].astype(float).values,
        })
        return course.sort_values(["time", "condition", "sample"], kind="mergesort").reset_index(drop=True)

    def mean_by(self, column: str) -> pd.DataFrame:
        """Mean expression per feature for each group of a phenotype column."""
        self._require_column(column)
        groups = self.phenotype[column].astype(str)
        return self.matrix.T.groupby(groups.values).mean().T

    def summarize(
        self,
        condition_column: str = "condition",
        time_column: str = "time"
    ) -> ExpressionSummary:
        """Summarize the experiment's dimensions and design."""
        conditions = []
        per_condition = {}
        if condition_column in self.phenotype.columns:
            counts = self.phenotype[condition_column].astype(str).value_counts(sort=False)
            conditions = sorted(counts.index)
            per_condition = {c: int(counts[c]) for c in conditions}
        time_points = []
        if time_column in self.phenotype.columns:
            times = pd.to_numeric(self.phenotype[time_column], errors="coerce").dropna()
            time_points = sorted(float(t) for t in np.unique(times.values))
        return ExpressionSummary(
            n_features=self.shape[0],
            n_samples=self.shape[1],
            conditions=conditions,
            time_points=time_points,
            samples_per_condition=per_condition,
        )
