from typing import Optional

import structlog

from config.settings import settings
from core.deploy import build_submit_outcome_deploy, sign_deploy
from core.errors import ContractNotConfigured
from core.execution import ExecutionFailure, ExecutionSuccess, parse_execution_result
from core.rpc import CasperRpcClient
from core.signer import OutcomeSigner
from models import DeployStatus

logger = structlog.get_logger()


def status_from_deploy_info(info) -> DeployStatus:
    """Map a deploy from `info_get_deploy` to success / failed / pending."""
    results = info.get("execution_info") if isinstance(info, dict) else None
    if results:
        first = results[0] if isinstance(results[0], dict) else {}
        parsed = parse_execution_result(first.get("result"))
        if isinstance(parsed, ExecutionSuccess):
            return DeployStatus.SUCCESS
        if isinstance(parsed, ExecutionFailure):
            return DeployStatus.FAILED
    return DeployStatus.PENDING


class SettlementSubmitter:
    def __init__(self, signer: OutcomeSigner, rpc: Optional[CasperRpcClient] = None,
                 outcome_manager_hash: Optional[str] = None, chain_name: Optional[str] = None):
        self.signer = signer
        self.rpc = rpc or CasperRpcClient()
        self.outcome_manager_hash = outcome_manager_hash
        self.chain_name = chain_name or settings.CASPER_CHAIN_NAME

    def submit_outcome(self, call_id: int, outcome: bool, final_price: int, timestamp: int) -> str:
        key_pair = self.signer.require_key_pair()
        if not self.outcome_manager_hash:
            raise ContractNotConfigured("OutcomeManager")

        deploy = build_submit_outcome_deploy(
            key_pair, call_id, outcome, final_price,
            contract_hash=self.outcome_manager_hash,
            chain_name=self.chain_name,
        )
        signed = sign_deploy(deploy, key_pair)
        deploy_hash = self.rpc.put_deploy(signed)
        logger.info("Deploy submitted", call_id=call_id, deploy_hash=deploy_hash, outcome_ts=timestamp)
        return deploy_hash

    def get_deploy_status(self, deploy_hash: str) -> DeployStatus:
        try:
            info = self.rpc.get_deploy(deploy_hash)
        except Exception as e:
            logger.warning("Deploy status query failed", deploy_hash=deploy_hash, error=str(e))
            return DeployStatus.UNKNOWN
        return status_from_deploy_info(info)
