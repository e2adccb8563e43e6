"""
Helpers for the refinement example: annotation image to raw scores.
"""

import numpy as np
from PIL import Image


def image2scores(image_name: str, anno_name: str, gt_prob: float=0.5) -> tuple:
    """
    Read an RGB image and a color annotation, black meaning unlabeled.

    Args:
        image_name: path of the RGB image.
        anno_name: path of the annotation, one color per label.
        gt_prob: probability given to the annotated label.

    Returns:
        scores: log-probabilities, [n_labels, h, w], float32.
        image: mean-centered color, [3, h, w], float32.
        n_labels: number of labels.
        colors: [n_labels, 3], uint8, color of each label.
    """
    image = np.array(Image.open(image_name).convert("RGB"), dtype=np.float32) # [h, w, 3]
    anno = np.array(Image.open(anno_name).convert("RGB"), dtype=np.uint32) # [h, w, 3]
    h, w = anno.shape[:2]

    # - One code per color, black (0) is unlabeled
    anno_code = anno[..., 0] + (anno[..., 1] << 8) + (anno[..., 2] << 16)
    codes, labels = np.unique(anno_code, return_inverse=True)
    labels = labels.reshape((h, w))
    if codes[0] == 0:
        codes, labels = codes[1:], labels - 1
    n_labels = max(codes.shape[0], 1)

    u_prob = np.float32(1. / n_labels)
    n_prob = np.float32((1. - gt_prob) / max(n_labels - 1, 1))
    p_prob = np.float32(gt_prob)

    probs = np.full((n_labels, h, w), u_prob, dtype=np.float32)
    labeled = labels >= 0
    probs[:, labeled] = n_prob
    ys, xs = np.nonzero(labeled)
    probs[labels[labeled], ys, xs] = p_prob

    colors = np.stack([codes & 0xff, (codes >> 8) & 0xff, (codes >> 16) & 0xff], axis=-1).astype(np.uint8)
    image = image - image.reshape((-1, 3)).mean(axis=0)[np.newaxis, np.newaxis, :]

    return np.log(probs), np.transpose(image, (2, 0, 1)).astype(np.float32), n_labels, colors
