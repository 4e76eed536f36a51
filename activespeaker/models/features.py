"""Data models for face geometry and per-frame face features"""

from dataclasses import dataclass
from typing import Optional, Tuple
import numpy as np


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned box in normalized image coordinates
    
    Origin is the top-left corner of the image. Detectors may report boxes that
    extend past the frame edge; the center is clipped to [0, 1].
    
    Attributes:
        x: Left edge
        y: Top edge
        width: Box width
        height: Box height
    """
    x: float
    y: float
    width: float
    height: float
    
    def __post_init__(self):
        """Validate box data"""
        assert self.width >= 0, "Width must be non-negative"
        assert self.height >= 0, "Height must be non-negative"
    
    @property
    def center(self) -> Tuple[float, float]:
        cx = min(max(self.x + self.width / 2.0, 0.0), 1.0)
        cy = min(max(self.y + self.height / 2.0, 0.0), 1.0)
        return (cx, cy)
    
    @property
    def area(self) -> float:
        return self.width * self.height
    
    def intersection(self, other: "BoundingBox") -> float:
        """Area of the overlap with another box (0.0 when disjoint)"""
        overlap_w = min(self.x + self.width, other.x + other.width) - max(self.x, other.x)
        overlap_h = min(self.y + self.height, other.y + other.height) - max(self.y, other.y)
        if overlap_w <= 0 or overlap_h <= 0:
            return 0.0
        return overlap_w * overlap_h
    
    def iou(self, other: "BoundingBox") -> float:
        """Intersection-over-Union with another box
        
        Returns:
            IoU in [0, 1]; 0.0 when the union is empty
        """
        inter = self.intersection(other)
        union = self.area + other.area - inter
        if union <= 0:
            return 0.0
        return inter / union
    
    def distance_to(self, point: Tuple[float, float]) -> float:
        """Euclidean distance between the box center and a point"""
        cx, cy = self.center
        return float(np.hypot(cx - point[0], cy - point[1]))


@dataclass
class FaceObservation:
    """A single face reported by the landmark detector for one image
    
    Lip contours are expressed in coordinates normalized to the bounding box
    (0 at the box's top/left edge, 1 at its bottom/right edge).
    
    Attributes:
        bounding_box: Face box in normalized image coordinates
        inner_lips: (N, 2) array of inner lip contour points, if available
        outer_lips: (N, 2) array of outer lip contour points, if available
        confidence: Detector confidence [0, 1]
    """
    bounding_box: BoundingBox
    inner_lips: Optional[np.ndarray] = None
    outer_lips: Optional[np.ndarray] = None
    confidence: float = 1.0
    
    def __post_init__(self):
        """Validate landmark data"""
        assert 0.0 <= self.confidence <= 1.0, "Confidence must be in [0, 1]"
        for points in (self.inner_lips, self.outer_lips):
            if points is not None and len(points) > 0:
                assert isinstance(points, np.ndarray), "Lip points must be numpy array"
                assert points.ndim == 2 and points.shape[1] == 2, "Lip points must be (N, 2)"
    
    @property
    def mouth_openness(self) -> float:
        """Vertical lip-contour span scaled by the box height.
        
        The larger of the inner and outer lip spans is used. Both contours must
        be present; otherwise the mouth is reported as closed (0.0).
        """
        if self.inner_lips is None or self.outer_lips is None:
            return 0.0
        if len(self.inner_lips) == 0 or len(self.outer_lips) == 0:
            return 0.0
        inner_span = float(np.ptp(self.inner_lips[:, 1]))
        outer_span = float(np.ptp(self.outer_lips[:, 1]))
        return max(inner_span, outer_span) * self.bounding_box.height


@dataclass(frozen=True)
class FaceSample:
    """One tracked observation of a face
    
    Attributes:
        timestamp: Seconds from the start of the video
        bounding_box: Face box in normalized image coordinates
        mouth_openness: Mouth openness scalar for this observation
        is_speaking: Whether the mouth was judged to be speaking
    """
    timestamp: float
    bounding_box: BoundingBox
    mouth_openness: float
    is_speaking: bool
    
    @property
    def center(self) -> Tuple[float, float]:
        return self.bounding_box.center
