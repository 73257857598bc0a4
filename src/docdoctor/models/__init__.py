"""Domain value objects."""

from docdoctor.models.properties import L1Properties
from docdoctor.models.refinement import Refinement
from docdoctor.models.stub import Stub

__all__ = ["L1Properties", "Refinement", "Stub"]
