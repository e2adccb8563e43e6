import logging
import time

import numpy as np
import matplotlib.pyplot as plt

from perm_densecrf import DenseCRFConfig, DenseCRFLayer
from perm_densecrf.util.example_util import image2scores

image_name = "../data/examples/im2.png"
anno_name = "../data/examples/anno2.png"
save_name = "output/refined2.png"

# - Hyper-parameters for [0, 255] mean-centered color
crf_config = DenseCRFConfig(
    max_iter=10,
    pos_w=(3., ),
    pos_xy_std=(3., ),
    bi_w=(10., ),
    bi_xy_std=(60., ),
    bi_rgb_std=(20., ),
    has_image=True,
)


def main():
    logging.basicConfig(format="%(asctime)s %(levelname)s %(message)s", level=logging.INFO)

    scores, image, n_labels, colors = image2scores(image_name, anno_name)
    h, w = image.shape[1:]
    print("Load {} ({} x {}), {} labels.".format(image_name, h, w, n_labels))

    crf = DenseCRFLayer(crf_config)

    start = time.time()
    top_inf, top_map = crf(scores[np.newaxis, ...], np.array([[h, w]]), image[np.newaxis, ...])
    print("Time: ", time.time() - start)

    MAP = colors[top_map[0, 0].astype(np.int64)]
    plt.imsave(save_name, MAP)
    print("Write to {}.".format(save_name))

    plt.imshow(MAP)
    plt.show()


if __name__ == "__main__":
    main()
