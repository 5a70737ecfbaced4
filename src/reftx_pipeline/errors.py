"""Error taxonomy for the ranking engine.

All errors are fatal for the cohort that raised them: the run fails closed
and no partial output is produced. The cohort pipeline tags each error with
the cohort name before re-raising it.
"""


class RankingError(ValueError):
    """Base class for unrecoverable ranking pipeline errors."""

    def __init__(self, message: str, cohort: str | None = None):
        super().__init__(message)
        self.message = message
        self.cohort = cohort

    def __str__(self) -> str:
        if self.cohort:
            return f"[cohort={self.cohort}] {self.message}"
        return self.message


class MissingAnnotationError(RankingError):
    """Genes in the count matrix have no usable length annotation."""

    def __init__(self, genes: list[str], cohort: str | None = None):
        self.genes = list(genes)
        preview = ", ".join(self.genes[:10])
        if len(self.genes) > 10:
            preview += f", ... ({len(self.genes) - 10} more)"
        super().__init__(
            f"{len(self.genes)} gene(s) missing from gene length map: {preview}",
            cohort=cohort,
        )


class EmptyGroupError(RankingError):
    """A declared group has no member samples."""

    def __init__(self, group: str, message: str | None = None, cohort: str | None = None):
        self.group = group
        super().__init__(message or f"Group '{group}' has no member samples", cohort=cohort)


class ZeroLibrarySizeError(EmptyGroupError):
    """A sample has a total count of zero, so RPKM is undefined."""

    def __init__(self, sample: str, cohort: str | None = None):
        self.sample = sample
        super().__init__(
            group=sample,
            message=f"Sample '{sample}' has library size 0; cannot compute RPKM",
            cohort=cohort,
        )


class InconsistentSymbolError(RankingError):
    """Symbols present in some groups' ranked tables are absent from others."""

    def __init__(self, missing: dict[str, list[str]], cohort: str | None = None):
        # symbol -> groups lacking it
        self.missing = {symbol: list(groups) for symbol, groups in missing.items()}
        details = "; ".join(
            f"{symbol} absent from {', '.join(groups)}"
            for symbol, groups in list(self.missing.items())[:10]
        )
        super().__init__(
            f"{len(self.missing)} symbol(s) not ranked in every group: {details}",
            cohort=cohort,
        )
