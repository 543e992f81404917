"""
Configuração de métricas Prometheus para acceptor e proposer.
"""
from prometheus_client import Counter, Histogram


# Métricas para o Acceptor
acceptor_metrics = {
    "prepare_received": Counter(
        "paxos_prepare_received_total",
        "Número total de mensagens prepare recebidas",
        ["node_id"]
    ),
    "accept_received": Counter(
        "paxos_accept_received_total",
        "Número total de mensagens accept recebidas",
        ["node_id"]
    ),
    "accepted": Counter(
        "paxos_accepted_total",
        "Número de pedidos accept aceitos",
        ["node_id"]
    ),
    "stale_accepts": Counter(
        "paxos_stale_accepts_total",
        "Número de pedidos accept ignorados por número de proposta antigo",
        ["node_id"]
    ),
    "protocol_errors": Counter(
        "paxos_protocol_errors_total",
        "Número de mensagens rejeitadas por violação do protocolo",
        ["node_id"]
    )
}


# Métricas para o Proposer
proposer_metrics = {
    "rounds": Counter(
        "paxos_rounds_total",
        "Número total de rodadas iniciadas",
        ["node_id"]
    ),
    "rejected_rounds": Counter(
        "paxos_rejected_rounds_total",
        "Número de rodadas rejeitadas e repetidas",
        ["node_id"]
    ),
    "chosen": Counter(
        "paxos_chosen_total",
        "Número de rodadas que escolheram um valor",
        ["node_id"]
    ),
    "quorum_timeouts": Counter(
        "paxos_quorum_timeouts_total",
        "Número de fases abandonadas por timeout de quórum",
        ["node_id"]
    ),
    "prepare_phase_duration": Histogram(
        "paxos_prepare_phase_duration_seconds",
        "Duração da fase prepare",
        ["node_id"]
    ),
    "accept_phase_duration": Histogram(
        "paxos_accept_phase_duration_seconds",
        "Duração da fase accept",
        ["node_id"]
    )
}
