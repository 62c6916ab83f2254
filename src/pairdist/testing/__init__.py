from pairdist.testing.harness import DistanceInputs, DistanceTest, HarnessState, compare_matrices

__all__ = ["DistanceInputs", "DistanceTest", "HarnessState", "compare_matrices"]
