"""
Test suite for orthogonality-constrained convolutional analysis operator learning.

This test suite validates the mathematical properties of the learning algorithm:
- Hard thresholding is the exact L0 proximal map
- The Procrustes filter update preserves H^H H = I / prod(R)
- Alternating minimization never increases the objective
"""
