
from .generator import Sample, Dataset, DataConfig, DataGenerator, MarginDataGenerator

__all__ = [
    "Sample",
    "Dataset",
    "DataConfig",
    "DataGenerator",
    "MarginDataGenerator",
]
