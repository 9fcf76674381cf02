from __future__ import annotations
from typing import Sequence

import pytorch_lightning as pl
import torch
from torch import nn


class LSTMRegressor(pl.LightningModule):
    """Stacked LSTM over a univariate window, projected to ``look_ahead`` outputs."""

    def __init__(self,
                 window_size: int = 14,
                 look_ahead: int = 1,
                 hidden_sizes: Sequence[int] = (64, 32),
                 dropout: float = 0.2,
                 learning_rate: float = 1e-3):
        super().__init__()
        self.save_hyperparameters()
        if not hidden_sizes:
            raise ValueError("hidden_sizes must name at least one layer")

        layers = []
        in_size = 1
        for h in hidden_sizes:
            layers.append(nn.LSTM(input_size=in_size, hidden_size=h, batch_first=True))
            in_size = h
        self.lstms = nn.ModuleList(layers)
        self.dropout = nn.Dropout(dropout)
        self.head = nn.Linear(in_size, look_ahead)
        self.loss_fn = nn.MSELoss()

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        # x: [batch, window_size, 1]
        out = x
        for lstm in self.lstms:
            out, _ = lstm(out)
        last = out[:, -1, :]
        return self.head(self.dropout(last))

    def training_step(self, batch, batch_idx):
        x, y = batch
        loss = self.loss_fn(self(x), y)
        self.log("train_loss", loss, on_step=False, on_epoch=True, prog_bar=False)
        return loss

    def configure_optimizers(self):
        return torch.optim.Adam(self.parameters(), lr=self.hparams.learning_rate)


def make_lstm(window_size=14,
              look_ahead=1,
              hidden_sizes=(64, 32),
              dropout=0.2,
              learning_rate=1e-3):
    return LSTMRegressor(
        window_size=window_size,
        look_ahead=look_ahead,
        hidden_sizes=tuple(hidden_sizes),
        dropout=dropout,
        learning_rate=learning_rate,
    )


def make_trainer(max_epochs: int, accelerator: str = "cpu") -> pl.Trainer:
    return pl.Trainer(
        max_epochs=max_epochs,
        accelerator=accelerator,
        devices=1,
        logger=False,
        enable_checkpointing=False,
        enable_progress_bar=False,
        enable_model_summary=False,
        log_every_n_steps=1,
    )
