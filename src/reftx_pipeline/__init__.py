"""Reference transcript ranking pipeline for extracellular vesicle RNA-seq cohorts."""

__version__ = "0.1.0"
