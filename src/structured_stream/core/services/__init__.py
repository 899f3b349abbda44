# Services package

from .array_path_locator import ArrayPathLocator
from .completeness_classifier import CompletenessClassifier
from .emission_sequencer import EmissionSequencer
from .final_document_validator import FinalDocumentValidator
from .fragment_buffer import FragmentBuffer
from .item_transformer import ItemTransformer
from .partial_json_parser import PartialJsonParser

__all__ = [
    "ArrayPathLocator",
    "CompletenessClassifier",
    "EmissionSequencer",
    "FinalDocumentValidator",
    "FragmentBuffer",
    "ItemTransformer",
    "PartialJsonParser",
]
